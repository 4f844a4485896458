"""OP booking app.

Models, services, serializers and views of the appointment slot
allocation and booking lifecycle engine.
"""
