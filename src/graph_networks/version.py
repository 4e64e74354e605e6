# Registry documents are published per schema version;
# `major.minor` of this value selects the compatible registry.
LIBRARY_VERSION = "0.7.0"
