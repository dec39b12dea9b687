"""SmartLook: AI wardrobe, virtual fitting room and shop try-on."""

__version__ = "0.1.0"
