# main.py
import os

from config import configure_logging
from web_app import create_app

if __name__ == "__main__":
    configure_logging()
    # Flask runs on localhost:5000
    create_app().run(debug=bool(os.environ.get("FLASK_DEBUG")), host="127.0.0.1", port=5000)
