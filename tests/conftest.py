import os
import tempfile

# Settings are read once per process; fix them before any app module loads.
os.environ.setdefault("BUDGET_DATA_DIR", tempfile.mkdtemp(prefix="budgetwise-tests-"))
os.environ.setdefault("BUDGET_BCRYPT_ROUNDS", "4")
os.environ.setdefault("BUDGET_TIMEZONE", "UTC")
