"""HTTP API blueprints for the CRM admin console."""
