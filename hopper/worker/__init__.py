"""Background job processing."""