import json
import os

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
CONFIG_FILE_PATH = os.getenv(
    'MARBLE_RACE_CONFIG',
    os.path.join(BASE_DIR, 'configs', 'game_balance.json'),
)

def load_config(path=None):
    """
    Loads the main game balance config file.
    """
    path = path or CONFIG_FILE_PATH
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
        return config
    except FileNotFoundError:
        print(f"FATAL ERROR: Could not find config file at {path}")
        return None
    except json.JSONDecodeError as e:
        print(f"FATAL ERROR: Could not parse config file {path}: {e}")
        return None

# Load the config ONCE when the module is first imported
BALANCE_CONFIG = load_config()

def get_config(key_path, default=None):
    """
    Safely gets a value from the loaded config using a 'dot.path'.
    Example: get_config('racing.phase_seconds')
    """
    if not BALANCE_CONFIG:
        return default

    try:
        value = BALANCE_CONFIG
        for key in key_path.split('.'):
            value = value[key]
        return value
    except (KeyError, TypeError):
        print(f"Warning: Could not find config key: {key_path}")
        return default
