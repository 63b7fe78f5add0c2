"""Huddle Utilities"""
