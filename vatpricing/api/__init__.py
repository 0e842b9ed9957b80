"""API 모듈"""
