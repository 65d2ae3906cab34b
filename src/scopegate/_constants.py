"""Internal constants shared across the package."""

# ------------------------------------------------------------------
# Aggregator (monitor) side
# ------------------------------------------------------------------

CONFIGMAP_PREFIX = "scoped-config-"
"""Only ConfigMaps whose name starts with this prefix declare scopes."""

DEFAULT_NAMESPACE = "default"
DEFAULT_INTERVAL_S: float = 10.0

SHARED_VOLUME_PATH = "/shared-data"
"""Directory the monitor publishes the snapshot into."""

SNAPSHOT_FILE_NAME = "ratify-config.json"
TEMP_SUFFIX = ".tmp"

# ------------------------------------------------------------------
# Verifier (gate) side
# ------------------------------------------------------------------

SHARED_VOLUME_MOUNT_PATH = "/var"
"""Mount point of the shared volume inside the verifier's container."""

DEFAULT_SNAPSHOT_PATH = f"{SHARED_VOLUME_MOUNT_PATH}{SHARED_VOLUME_PATH}/{SNAPSHOT_FILE_NAME}"

RATIFY_BIN_PATH = "/root/.ratify/bin/ratify"
RATIFY_CONFIG_PATH = "/root/.ratify/bin/config.json"
DEFAULT_HOME_DIR = "/root"

# ------------------------------------------------------------------
# Kubernetes
# ------------------------------------------------------------------

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
SERVICE_HOST_ENV = "KUBERNETES_SERVICE_HOST"
SERVICE_PORT_ENV = "KUBERNETES_SERVICE_PORT"
CONFIGMAPS_ENDPOINT = "/api/v1/namespaces/{namespace}/configmaps"
