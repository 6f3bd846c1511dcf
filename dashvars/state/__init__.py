"""Templating state: store, reducers, async requests and refresh flows."""
