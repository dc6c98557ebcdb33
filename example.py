from fx_keeper import FxKeeper, Settings

print(FxKeeper.__version__)  # 0.1.0

# Default usage: bundled SQLite store, in-process cache, hourly refresh
with FxKeeper(Settings()) as fx:
    # Refresh once on startup, then arm the hourly timer
    fx.start(wait=True)

    # Stored rates (units of TWD per unit of each currency)
    for record in fx.rates():
        print(record.to_dict())

    # Convert through the base currency
    print(fx.convert("1000.00", "USD", "TWD"))  # e.g. Decimal('31250.00')
    print(fx.convert("100", "USD", "EUR"))
    print(fx.convert_detailed("100", "JPY", "CNY"))

    # Admin surface
    print(fx.auto_update_status())
    fx.disable_auto_update()
    fx.trigger_refresh()
    fx.enable_auto_update()
