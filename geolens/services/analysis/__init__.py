# Analysis services
