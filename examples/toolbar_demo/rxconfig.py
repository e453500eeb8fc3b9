"""Reflex configuration for the list toolbar demo app."""

import reflex as rx

config = rx.Config(
    app_name="toolbar_demo",
    plugins=[rx.plugins.SitemapPlugin()],
)
