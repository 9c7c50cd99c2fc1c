"""Step CA - local CA bootstrap (ca.json + root/intermediate) and issuance via the step CLI."""
