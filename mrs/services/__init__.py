"""
Service layer of the Material Request System.

Every public operation takes an explicit Actor first and returns an ActionResult
(see base.py). Routes call exactly one operation per HTTP request.
"""
