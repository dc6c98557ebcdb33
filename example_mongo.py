from fx_keeper import FxKeeper, Settings

# MongoDB store; the database name comes from the URI path
settings = Settings(db_url="mongodb://localhost:27017/forex", auto_update=False)

with FxKeeper(settings) as fx:
    # One refresh without arming the periodic timer
    result = fx.refresh()
    print(result.as_dict())
    # => {'created': 5, 'updated': 0, 'skipped': 0, 'failed': 0, ...}

    print(fx.convert("1000", "CNY", "USD"))
