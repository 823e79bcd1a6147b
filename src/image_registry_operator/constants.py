"""Constants for the Image Registry Operator."""

# API Group
API_GROUP = "imageregistry.operator.openshift.io"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Managed object
KIND_IMAGE_REGISTRY = "Config"
PLURAL_IMAGE_REGISTRY = "configs"
DEFAULT_RESOURCE_NAME = "image-registry"

# Cluster operator status
CLUSTER_OPERATOR_GROUP = "config.openshift.io"
CLUSTER_OPERATOR_VERSION = "v1"
CLUSTER_OPERATOR_PLURAL = "clusteroperators"

# Work queue
WORKQUEUE_KEY = "changes"

# Annotations
ANNOTATION_CHECKSUM = f"{API_GROUP}/checksum"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Field Manager
FIELD_MANAGER = "cluster-image-registry-operator"

# Management states
MANAGEMENT_STATE_MANAGED = "Managed"
MANAGEMENT_STATE_UNMANAGED = "Unmanaged"
MANAGEMENT_STATE_REMOVED = "Removed"
MANAGEMENT_STATE_FORCE = "Force"

# Condition Types
COND_AVAILABLE = "Available"
COND_PROGRESSING = "Progressing"
COND_REMOVED = "Removed"
COND_FAILING = "Failing"

# Condition statuses
CONDITION_TRUE = "True"
CONDITION_FALSE = "False"
CONDITION_UNKNOWN = "Unknown"

# Storage backend names
STORAGE_EMPTYDIR = "EmptyDir"
STORAGE_S3 = "S3"
STORAGE_SWIFT = "Swift"
STORAGE_GCS = "GCS"
STORAGE_PVC = "PVC"
STORAGE_AZURE = "Azure"

# Secrets
SECRET_PRIVATE_CONFIGURATION = "image-registry-private-configuration"
SECRET_PRIVATE_CONFIGURATION_USER = "image-registry-private-configuration-user"

# Install config
INSTALL_CONFIG_NAMESPACE = "kube-system"
INSTALL_CONFIG_CONFIGMAP = "cluster-config-v1"
INSTALL_CONFIG_KEY = "install-config"

# Filesystem storage
REGISTRY_ROOT_DIRECTORY = "/registry"
DEFAULT_PVC_NAME = "image-registry-storage"
DEFAULT_PVC_SIZE = "100Gi"
