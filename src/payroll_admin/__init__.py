"""payroll-admin - tenant and identity administration for the payroll app."""

__version__ = "0.1.0"
