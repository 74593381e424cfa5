# This file marks the schemas package for API request and response models.
# Keeping contracts in one package makes payload drift easy to review.
