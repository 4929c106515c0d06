"""Services for the Taskflow comment collaboration engine."""
