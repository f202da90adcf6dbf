# migrainelog: migraine episode tracking backend
