"""
bizos

Multi-tenant agent platform backend: cron-scheduled and event-driven
workflows, an event bus with workflow/agent/webhook subscribers, agent
sessions with human-in-the-loop confirmations, and a tool catalogue.
"""

__version__ = "0.4.0"
