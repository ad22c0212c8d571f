HWSIGNER_VERSION = '1.0.0'   # version of the client package
