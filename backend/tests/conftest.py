import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-finai-unit-tests")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
