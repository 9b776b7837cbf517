"""
users/apps.py — App configuration for the Roster "users" app

Purpose
===============================================================================
Register the app with Django and set default behavior (like BigAutoField IDs).

Key Points
- default_auto_field: BigAutoField for the User primary key. The key is
  rewritten by users.renumbering after every create/delete.
- name: Must match the dotted path used in INSTALLED_APPS ("users").
"""

from django.apps import AppConfig


class UsersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'users'
    verbose_name = 'Users'
