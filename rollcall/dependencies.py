"""
FastAPI dependencies that hand the per-application collaborators to routes.

create_app() puts one SessionStore, NotificationHub and DeviceMarkers instance
on app.state; routes receive them through Depends() rather than importing
module globals.
"""
from fastapi import Request

from rollcall.checkin.device_marker import DeviceMarkers
from rollcall.checkin.pipeline import JoinPolicy
from rollcall.config import Settings
from rollcall.notifier import NotificationHub
from rollcall.store import SessionStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_hub(request: Request) -> NotificationHub:
    return request.app.state.hub


def get_markers(request: Request) -> DeviceMarkers:
    return request.app.state.markers


def get_join_policy(request: Request) -> JoinPolicy:
    return request.app.state.join_policy
