"""HTTP routers exposing the comment engine to the Taskflow UI."""
