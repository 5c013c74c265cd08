"""
Serverless entry point for the ITSM Portal API
"""
import os

# Set environment variables for serverless
os.environ.setdefault("ENVIRONMENT", "production")
os.environ.setdefault("ESCALATION_RULES_PATH", "/tmp/escalation_rules.yaml")
os.environ.setdefault("SESSION_SLA_POLL_INTERVAL", "0")  # Disable scheduler in serverless

from mangum import Mangum
from itsm_portal.main import app, init_services

# Lifespan is off, so services are built at import time
init_services(app)

# Lambda handler for ASGI app
handler = Mangum(app, lifespan="off")
