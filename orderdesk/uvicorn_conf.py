import os

host = os.getenv("HOST", "0.0.0.0")
port = int(os.getenv("PORT", "9002"))
workers = int(os.getenv("UVICORN_WORKERS", str(max(1, min(4, os.cpu_count() or 1)))))
log_level = os.getenv("LOG_LEVEL", "info").lower()
