# Core package - bootstrap foundations
#
# Modules:
# - config: Process-level settings (environment overrides)
# - logging: Structured logging
# - directories: catalina.home / catalina.base resolution
# - properties: catalina.properties discovery and loading
# - placeholders: ${name} expansion in configuration values
