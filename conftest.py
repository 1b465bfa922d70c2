"""
Root conftest.py: sets environment variables for the test run.

All real fixtures live in tests/conftest.py.
"""

import os
import tempfile

# Test env vars MUST be set before any import of the app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PLUGIN_CONFIG_DIR", tempfile.mkdtemp(prefix="plugin-engine-tests-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("FORTIGATE_PROD_URL", "https://fortigate.test")
os.environ.setdefault("FORTIGATE_TEST_URL", "https://fortigate-lab.test")
os.environ.setdefault("FORTIGATE_PROD_KEY", "prod-key")
os.environ.setdefault("FORTIGATE_TEST_KEY", "lab-key")
os.environ.setdefault("JIRA_URL", "https://jira.test")
os.environ.setdefault("JIRA_USERNAME", "svc-jira")
os.environ.setdefault("JIRA_API_TOKEN", "jira-token")
os.environ.setdefault("JIRA_ENABLED", "false")
os.environ.setdefault("ELASTIC_ENABLED", "false")
os.environ.setdefault("GRAFANA_ENABLED", "false")
os.environ.setdefault("MDR_API_ENABLED", "false")
