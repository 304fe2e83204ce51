"""OSC Monitor: platform event feed and instance-count views over Grafana Loki/Prometheus."""
