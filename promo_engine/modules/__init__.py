"""Promotions engine modules: the evaluation engine and the services around it."""
