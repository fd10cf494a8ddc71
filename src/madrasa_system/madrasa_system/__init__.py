"""Madrasa System package.

Offline-first storage and cross-module consistency layer for the madrasa
administration app. Organized by feature modules (hybrid storage, validation,
sync, ...) with a thin Flask controller layer over service/repository layers.
"""
