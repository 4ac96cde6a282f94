# WSGI entry point for the rental engine API

import os

# Load environment variables from .env file if present
from dotenv import load_dotenv
env_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
if os.path.exists(env_path):
    load_dotenv(env_path)

# Import the Flask app
from rental_engine.main import create_app

application = create_app()
