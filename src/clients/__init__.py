"""Clients for the external APIs the reconcilers drive."""

from clients.influxdb import APIError, InfluxDBClient, InfluxDBError

__all__ = ["APIError", "InfluxDBClient", "InfluxDBError"]
