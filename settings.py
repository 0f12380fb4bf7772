from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Tesla application credentials (registered at developer.tesla.com)
# Client ID may also be stored with `energy-monitor configure`
TESLA_CLIENT_ID = config.get("TESLA_CLIENT_ID", "")
TESLA_CLIENT_SECRET = config.get("TESLA_CLIENT_SECRET", "")

# OAuth configuration
# auth.tesla.com handles user authorization, code exchange and refresh;
# the partner (client_credentials) token comes from fleet-auth
AUTH_BASE = "https://auth.tesla.com"
AUTHORIZE_URL = f"{AUTH_BASE}/oauth2/v3/authorize"
TOKEN_URL = f"{AUTH_BASE}/oauth2/v3/token"
PARTNER_TOKEN_URL = "https://fleet-auth.prd.vn.cloud.tesla.com/oauth2/v3/token"
REDIRECT_URI = config.get("REDIRECT_URI", "http://localhost:1717/callback")
SCOPES = config.get("SCOPES", "openid offline_access user_data energy_device_data energy_cmds")
PARTNER_SCOPES = "openid user_data energy_device_data energy_cmds vehicle_device_data vehicle_cmds vehicle_charging_cmds"

# Fleet API region base (NA by default; EU is fleet-api.prd.eu.vn.cloud.tesla.com)
FLEET_API_BASE = config.get("FLEET_API_BASE", "https://fleet-api.prd.na.vn.cloud.tesla.com")
USER_AGENT = "EnergyMonitor/1.0"

# Timeouts
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 30.0)
CALLBACK_TIMEOUT_SECONDS = config.get("CALLBACK_TIMEOUT_SECONDS", 300)

# Session lifecycle
REFRESH_INTERVAL_SECONDS = config.get("REFRESH_INTERVAL_SECONDS", 30)
# Refresh the access token when it expires within this margin
TOKEN_REFRESH_MARGIN_SECONDS = config.get("TOKEN_REFRESH_MARGIN_SECONDS", 300)
# Wipe stored tokens at launch instead of resuming the previous session
CLEAR_SESSION_ON_LAUNCH = config.get("CLEAR_SESSION_ON_LAUNCH", False)

# Sample history
SAMPLE_RETENTION_SECONDS = config.get("SAMPLE_RETENTION_SECONDS", 30 * 60)

# Storage
DATA_DIR = config.get("DATA_DIR", str(Path.home() / ".energy-monitor"))
VAULT_SERVICE = "com.energymonitor.tesla"
VAULT_FILE = config.get("VAULT_FILE", str(Path(DATA_DIR) / "vault.json"))
CONFIG_FILE = config.get("CONFIG_FILE", str(Path(DATA_DIR) / "config.json"))
# Shared by every process that renders samples (CLI, widgets)
SAMPLES_FILE = config.get("SAMPLES_FILE", str(Path(DATA_DIR) / "shared" / "samples.json"))
