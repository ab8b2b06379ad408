import os

# Console-only logging at WARNING while the app modules are imported
os.environ.setdefault("ENVIRONMENT", "testing")
