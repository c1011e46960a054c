"""Pure value objects shared by every payroll layer."""
