"""PlantOps: plant-routed operations records with role-gated approvals."""

__version__ = "0.1.0"
