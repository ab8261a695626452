"""
Service layer.

The cron-driven scheduler, the event bus with its outbound dispatcher, and
the helpers behind the confirmation inbox and the tool catalogue.
"""
