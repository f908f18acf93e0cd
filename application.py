"""
Start point for running flask app
"""
import os
import sys

from dotenv import load_dotenv

load_dotenv()

from app import create_app
from app.automation.logging_config import global_exception_handler

sys.excepthook = global_exception_handler

chain_id = os.environ.get("CHAIN_ID")
application = create_app(int(chain_id) if chain_id else None)

if __name__ == "__main__":
    application.run(host="0.0.0.0", port=8080, debug=False)
