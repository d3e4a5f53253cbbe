"""Configuration constants and environment flags."""
from datetime import timedelta

# Presence-style flags: set and non-empty means "on".
DANGER_ZONE = "WORKSTATION_DANGER_ZONE"
SKIP_DOCKER = "WORKSTATION_SKIP_DOCKER"
SKIP_PROXY = "WORKSTATION_SKIP_PROXY"
SKIP_BANNER = "WORKSTATION_SKIP_BANNER"

# Informational only; anything unexpected gets a warning.
DOCKER_HOST = "DOCKER_HOST"
EXPECTED_DOCKER_HOSTS = ("", "unix:///var/run/docker.sock")

ACCEPTED_MACOS_VERSIONS = ("14", "15", "26")

BREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
BREW_FALLBACK_PATHS = ("/opt/homebrew/bin/brew", "/usr/local/bin/brew")
BREW_MAX_AGE = timedelta(days=7)

CLT_POLL_INTERVAL = 5.0

DOCKER_APP = "/Applications/Docker.app"
DOCKER_DMG_URL = "https://desktop.docker.com/mac/main/{arch}/Docker.dmg"

LEGACY_VERSION_MANAGER = "rvm"
RUNTIME_MANAGER = "rbenv"

CREDENTIAL_HELPER = "osxkeychain"

# Relative to the user's home.
STATE_DIR = ".workstation"
LAUNCH_AGENT_LABEL = "com.workstation.refresh"
LAUNCH_AGENT_INTERVAL = 24 * 60 * 60
REFRESH_LOG = "Library/Logs/workstation-refresh.log"

# Relative to the Homebrew prefix.
PROXY_CONFIG = "etc/nginx/servers/workstation_timeouts.conf"
PROXY_SERVICE = "nginx"

HELP_CHANNEL = "#workstation-help"
