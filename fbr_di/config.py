"""Configuration loaded from the environment (and a local .env file)."""

import logging
import os

from dotenv import load_dotenv

from .models import DEFAULT_HS_CODE, DEFAULT_UOM, Settings

load_dotenv()


def clean_env_value(value):
    """Strip whitespace and surrounding quotes that hosting dashboards sometimes add"""
    if not value:
        return ''
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return value.strip()


def env_float(name, default):
    value = clean_env_value(os.getenv(name))
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning('Ignoring non-numeric %s=%r', name, value)
        return default


DB_PATH = clean_env_value(os.getenv('DB_PATH')) or 'invoices.db'

# sandbox uses the *_sb gateway endpoints
FBR_ENV = clean_env_value(os.getenv('FBR_ENV')) or 'sandbox'
FBR_TOKEN = clean_env_value(os.getenv('FBR_TOKEN'))
FBR_TIMEOUT = env_float('FBR_TIMEOUT', 30.0)
FBR_MAX_RETRIES = int(env_float('FBR_MAX_RETRIES', 2))
FBR_BACKOFF = env_float('FBR_BACKOFF', 1.0)

# Seconds between scenarios in a sandbox regression run
REGRESSION_DELAY = env_float('REGRESSION_DELAY', 0.5)
# Seconds between a clean validate and the automatic post
AUTO_POST_DELAY = env_float('AUTO_POST_DELAY', 1.5)

DEFAULT_SALES_TAX_RATE = env_float('DEFAULT_SALES_TAX_RATE', 18.0)
DEFAULT_FURTHER_TAX_RATE = env_float('DEFAULT_FURTHER_TAX_RATE', 0.0)
DEFAULT_SCENARIO = clean_env_value(os.getenv('DEFAULT_SCENARIO')) or 'SN002'

LOG_LEVEL = clean_env_value(os.getenv('LOG_LEVEL')) or 'INFO'


def load_settings():
    return Settings(
        sales_tax_rate=DEFAULT_SALES_TAX_RATE,
        further_tax_rate=DEFAULT_FURTHER_TAX_RATE,
        scenario_id=DEFAULT_SCENARIO,
        fbr_token=FBR_TOKEN,
        hs_code=clean_env_value(os.getenv('DEFAULT_HS_CODE')) or DEFAULT_HS_CODE,
        uom=clean_env_value(os.getenv('DEFAULT_UOM')) or DEFAULT_UOM,
        environment=FBR_ENV,
    )


def configure_logging(level=None):
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    # requests/urllib3 log every connection at DEBUG
    logging.getLogger('urllib3').setLevel(logging.WARNING)
