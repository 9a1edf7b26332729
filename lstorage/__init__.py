"""Node-local storage resources, volume store, admission webhooks, scheduler extender and storage controller."""

__version__ = "1.0.0"