"""
Services layer - lifecycle logic for the Incident aggregate.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- Each ledger owns one embedded sub-collection of the aggregate
- IncidentService is the only entry point that persists changes
"""
