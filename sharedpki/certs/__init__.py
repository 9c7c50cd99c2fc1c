"""Certificate files: inspection (cryptography.x509) and the on-disk store."""
