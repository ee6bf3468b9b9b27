# Data access services
