# Viewing core: geometry, viewport, overlay store, interaction, sessions
