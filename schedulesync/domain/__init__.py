"""Domain packages: scheduling rules and availability, and the chat assistant"""
