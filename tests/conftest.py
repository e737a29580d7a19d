import os

# Settings are read at import time, so point the app at a throwaway database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PLATFORM_COMMISSION_PERCENT"] = "10"
os.environ["LOG_LEVEL"] = "WARNING"
