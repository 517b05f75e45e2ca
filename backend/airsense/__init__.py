"""AirSense: MQTT ingestion and threshold alerting for IoT air-quality sensors."""
