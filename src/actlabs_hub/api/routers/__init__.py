"""
actlabs_hub.api.routers

Router modules grouped by audience: health, dev auth, user servers, admin, events.
"""
